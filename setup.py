from setuptools import setup, find_packages  # ignore: type

setup(
    name="search-sink",
    version="1.0.0",
    description="Forwards log events from a collection agent into an Elasticsearch or OpenSearch cluster",
    packages=find_packages(exclude=("tests", "tests.*")),
    install_requires=["requests", "boto3", "botocore", "pyyaml", "Click", "cerberus"],
    extras_require={
        "test": ["pytest", "pytest-mock", "requests-mock", "moto"],
    },
    entry_points={
        "console_scripts": [
            "search-sink = search_sink.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: System :: Logging",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "License :: OSI Approved :: Apache Software License",
    ],
    python_requires=">=3.10",
)
