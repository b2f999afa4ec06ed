import uvicorn

from scene_montage.config import Settings


def main():
    settings = Settings()
    uvicorn.run(
        "scene_montage.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=True,
        # Exclude job workspaces and the local blob container from the reload watcher
        reload_excludes=["storage/*", "*.db"],
    )


if __name__ == "__main__":
    main()
