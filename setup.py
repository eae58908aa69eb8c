from os import path

from setuptools import setup

this_dir = path.abspath(path.dirname(__file__))
with open(path.join(this_dir, "README.md"), encoding="utf8") as f:
    long_description = f.read()

setup(
    name="FastUoW",
    description="FastUoW - request scoped Unit of Work plugin for SQLAlchemy web apps",
    long_description=long_description,
    long_description_content_type="text/markdown",
    version="0.1",
    license="MIT",
    packages=["fastuow", "fastuow.core", "fastuow.test"],
    package_data={
        "fastuow": ["py.typed"],
        "fastuow.core": ["py.typed"],
        "fastuow.test": ["py.typed"],
    },
    keywords=["fastuow", "unit of work", "sqlalchemy", "fastapi", "flask"],
    python_requires=">=3.9",
    install_requires=[
        "sqlalchemy>=2.0",
        "fastapi",
        "uvicorn",
        "flask>=2.2",
        "httpx",
        "colorama",
    ],
    extras_require={
        "test": ["pytest"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Database",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
    ],
    entry_points={
        "console_scripts": [
            "uow = fastuow.command:console_main",
        ]
    },
)
