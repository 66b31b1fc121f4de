from vidhanto.database import engine, Base
from vidhanto.app_factory import create_app
import vidhanto.models  # noqa: F401  registers the tables on Base

# Create database tables
Base.metadata.create_all(bind=engine)

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)
