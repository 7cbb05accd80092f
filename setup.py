from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="issuesync",
    version="0.1.0",
    author="Your Name",
    author_email="your.email@example.com",
    description="A server application that keeps GitHub issues searchable through a Microsoft Graph connector",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yourusername/issuesync",
    packages=find_packages(include=["issuesync", "issuesync.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.11",
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.24",
        ],
    },
    entry_points={
        "console_scripts": [
            "issuesync=issuesync.cli:cli",
        ],
    },
    include_package_data=True,
    package_data={
        "issuesync": ["templates/*.json"],
    },
)
