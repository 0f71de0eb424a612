import uvicorn

from booking_engine.logging_config import setup_logging

#entry point to run FastAPI app
if __name__ == "__main__":
    setup_logging()
    uvicorn.run(
        "booking_engine.webapp:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
