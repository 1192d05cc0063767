from setuptools import setup, find_packages

setup(
    name="t212-rebalancer",
    version="1.0.0",
    author="Zehnlabs Rebalancer Team",
    description="Portfolio rebalancing engine for Trading 212 accounts",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={
        "broker_gateway": ["py.typed"],
        "rebalance_engine": ["py.typed"],
    },
    install_requires=[
        "pydantic==2.11.7",
        "aiohttp==3.12.15",
        "PyYAML==6.0.2",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "t212-rebalance=rebalancer_app.main:main",
        ],
    },
    python_requires=">=3.11",
)
