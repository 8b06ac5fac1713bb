# server.py (repo root)
from comic_studio.main import app

# Optional local run:
if __name__ == "__main__":
    import os, uvicorn
    from comic_studio.config import config
    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8080")),
        log_level=config.log_level.lower(),
    )
