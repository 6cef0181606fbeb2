"""
tfpluginschema - Provider plugin schemas from a provider registry

This setup.py file is provided for pip install compatibility.
"""

from setuptools import find_packages, setup

if __name__ == "__main__":
    setup(
        name="tfpluginschema",
        version="0.1.0",
        description="Download Terraform/OpenTofu provider plugins and query their schemas over the plugin protocol.",
        long_description=open("README.md").read(),
        long_description_content_type="text/markdown",
        package_dir={"": "src"},
        packages=find_packages("src"),
        python_requires=">=3.11",
        install_requires=[
            "grpcio>=1.56",
            "httpx>=0.24",
            "protobuf>=4.21",
            "pydantic>=2.0",
            "PyYAML>=6.0",
            "tenacity>=8.2",
        ],
        extras_require={
            "test": [
                "pytest>=7.0",
                "hypothesis>=6.0",
            ],
        },
        entry_points={
            "console_scripts": [
                "tfpluginschema=tfpluginschema.cli.main:main",
            ],
        },
        classifiers=[
            "Development Status :: 4 - Beta",
            "Intended Audience :: Developers",
            "Intended Audience :: System Administrators",
            "Programming Language :: Python :: 3",
            "Programming Language :: Python :: 3.11",
            "Programming Language :: Python :: 3.12",
            "Topic :: System :: Systems Administration",
        ],
    )
