from setuptools import find_namespace_packages, setup

setup(
    name="podcast-voicenotes",
    version="0.1.0",
    packages=find_namespace_packages(
        include=["shared.python*", "services.*"],
        exclude=["*.tests", "*.tests.*"],
    ),
    package_data={"services.voicenote_intake.src": ["templates/*.html"], "services.voicenote_admin.src": ["templates/*.html"]},
    install_requires=[
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        "jinja2>=3.1.0",
        "python-multipart>=0.0.9",
        "redis>=5.0.0",
        "elasticsearch>=8.11.0",
        "prometheus-client>=0.19.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "httpx>=0.25.0",
        ],
    },
    python_requires=">=3.11",
)
