from setuptools import setup, find_packages

setup(
    name="udprelay",
    version="1.0.0",
    description="UDP chat relay: one server fans text messages out to terminal clients",
    packages=find_packages(include=["udprelay", "udprelay.*"]),
    install_requires=[
        "colorama",
        "python-dotenv",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "udprelay-server = udprelay.server:main",
            "udprelay-client = udprelay.client:main",
        ],
    },
    python_requires=">=3.10",
)
