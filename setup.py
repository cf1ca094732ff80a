from setuptools import setup, find_packages

setup(
    name="speardrive",
    version="0.1.0",
    description="An on-demand package repository compositor",
    author="The speardrive developers",
    packages=find_packages(exclude=["tests", "tests.*"]),
    license="AGPL-3.0-only",
    python_requires=">=3.13",
    install_requires=[
        "aiohttp",
        "pydantic>=2",
        "pydantic-settings>=2",
        "toml",
        "werkzeug",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "pytest-aiohttp",
        ]
    },
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "speardrive = speardrive.server:main",
        ]
    }
)
