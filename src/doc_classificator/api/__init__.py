# FastAPI application for the document classification service
