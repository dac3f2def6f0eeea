"""
modelatlas - cached registry of AI model providers and models

This setup.py file is provided for pip install compatibility.
"""

from setuptools import find_packages, setup

if __name__ == "__main__":
    setup(
        name="modelatlas",
        version="0.1.0",
        description="Client-side registry that discovers, caches and queries AI model provider metadata.",
        long_description=open("README.md", encoding="utf-8").read(),
        long_description_content_type="text/markdown",
        package_dir={"": "src"},
        packages=find_packages("src"),
        python_requires=">=3.11",
        install_requires=[
            "httpx>=0.27",
            "pydantic>=2.5",
            "pyyaml>=6.0",
            "tenacity>=8.2",
        ],
        extras_require={
            "test": [
                "pytest>=7.4",
                "pytest-asyncio>=0.23",
            ],
        },
        classifiers=[
            "Development Status :: 4 - Beta",
            "Intended Audience :: Developers",
            "License :: OSI Approved :: Apache Software License",
            "Programming Language :: Python :: 3",
            "Programming Language :: Python :: 3.11",
            "Programming Language :: Python :: 3.12",
            "Topic :: Scientific/Engineering :: Artificial Intelligence",
        ],
    )
