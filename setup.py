from setuptools import setup

# 'requests' is only used by ForumClient.submit_post() for the synchronous
# forum_post call; fetching goes through httpx.

setup(
    name="stforum",
    version="1.0.0",
    description="Survey Tool forum engine — thread reconstruction, filters, CLI and web preview",
    py_modules=[
        # Config
        "cli", "st_config", "server",
        # Engine
        "STTypes", "STExceptions", "STText",
        "STPostStore", "STThreads", "STFilter", "STAssembler",
        "STPolicy", "STSession",
        # Collaborators
        "STClient", "STRender",
    ],
    install_requires=[
        "httpx>=0.25.0",   # async HTTP client for forum_fetch
        "requests",        # sync forum_post submit
        "flask",           # server.py web preview
        "click>=8.0",      # CLI
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "stforum=cli:cli",
        ],
    },
    python_requires=">=3.11",
)
