from setuptools import setup, find_packages

setup(
    name="ratekeeper",
    version="0.1.0",
    packages=find_packages(include=["ratekeeper", "ratekeeper.*"]),
    python_requires=">=3.11",
    install_requires=[
        "redis>=5.0",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
    ],
    extras_require={
        "fastapi": [
            "fastapi>=0.110",
        ],
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "fastapi>=0.110",
            "httpx>=0.27",
            "fakeredis[lua]>=2.20",
        ],
    },
)
