from setuptools import setup, find_packages

setup(
    name="slotwatch",
    version="1.0.0",
    packages=find_packages(exclude=("tests", "tests.*")),
    install_requires=[
        "pyyaml>=5.4",
        "jsonschema>=4.0.0",
        "requests>=2.25",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.8",
    package_data={
        "slotwatch": ["schemas/*.json"],
    },
    entry_points={
        "console_scripts": [
            "slotwatch=slotwatch.cli:main",
        ],
    },
)
