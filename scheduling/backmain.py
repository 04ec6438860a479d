from fastapi import FastAPI
from scheduling.routers import rou_series, rou_conflict, rou_transfer, rou_reschedule
from scheduling.configuration.monitor import instrument_fastapi

app = FastAPI(
    title="Studio Scheduling API",
    description="Recurring appointment scheduling for training studios",
    version="1.0.0"
)

# Include all routers
app.include_router(rou_series.router)
app.include_router(rou_conflict.router)
app.include_router(rou_transfer.router)
app.include_router(rou_reschedule.router)

# Instrument app with Azure Monitor
instrument_fastapi(app)

if __name__ == '__main__':
    import uvicorn
    uvicorn.run(app, host='0.0.0.0', port=8000)
