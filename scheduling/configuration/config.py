import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Config:
    # Azure CosmosDB Configuration
    COSMOSDB_ENDPOINT = os.getenv("COSMOS_DB_ENDPOINT")
    COSMOSDB_DATABASE_NAME = os.getenv("COSMOS_DB_DATABASE")
    COSMOSDB_CONTAINER_NAME = {
        "packages": os.getenv("COSMOS_CONTAINERS_PACKAGES", "packages"),
        "bookings": os.getenv("COSMOS_CONTAINERS_BOOKINGS", "bookings"),
        "group_lessons": os.getenv("COSMOS_CONTAINERS_GROUP_LESSONS", "group_lessons"),
        "appointments": os.getenv("COSMOS_CONTAINERS_APPOINTMENTS", "appointments"),
        "enrollments": os.getenv("COSMOS_CONTAINERS_ENROLLMENTS", "enrollments"),
        "reschedule_history": os.getenv("COSMOS_CONTAINERS_RESCHEDULE_HISTORY", "reschedule_history")
    }

    # Azure Entra External ID Configuration
    AZURE_ENTRAID_TENANT_SUBDOMAIN = os.getenv("AZURE_ENTRAID_TENANT_SUBDOMAIN")
    AZURE_ENTRAID_TENANT_ID = os.getenv("AZURE_ENTRAID_TENANT_ID")
    AZURE_ENTRAID_CLIENT_ID = os.getenv("AZURE_ENTRAID_CLIENT_ID")

    # Application Insights
    APPLICATIONINSIGHTS_CONNECTION_STRING = os.getenv("APPINSIGHTS_INSTRUMENTATIONKEY")

    # Scheduling policy
    MAX_SHIFT_WEEKS = int(os.getenv("SCHEDULING_MAX_SHIFT_WEEKS", "52"))
    MAX_SLOT_SHIFT = int(os.getenv("SCHEDULING_MAX_SLOT_SHIFT", "20"))
    GROUP_LESSON_WEEKS = int(os.getenv("SCHEDULING_GROUP_LESSON_WEEKS", "26"))
    DEFAULT_JOIN_WEEKS = int(os.getenv("SCHEDULING_DEFAULT_JOIN_WEEKS", "4"))
    RESCHEDULE_MIN_LEAD_HOURS = int(os.getenv("SCHEDULING_RESCHEDULE_MIN_LEAD_HOURS", "23"))
    # A reschedule_left value at or above this marks an unlimited booking
    UNLIMITED_RESCHEDULES = 999
