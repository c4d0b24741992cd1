from setuptools import find_packages, setup

setup(
    name="azprovider",
    version="0.4.0",
    description="Azure Resource Manager resource provider driven by Terraform HCL configuration",
    license="MIT",
    packages=find_packages(exclude=["tests*"]),
    python_requires=">=3.9",
    install_requires=[
        "python-hcl2>=4.3.0",
        "pyyaml>=6.0.1",
        "click>=8.1.0",
        "rich>=13.0.0",
        "jinja2>=3.1.0",
        "azure-core>=1.29.0",
        "azure-identity>=1.15.0",
        # managedapplications moved out of azure-mgmt-resource in 24.0.0
        "azure-mgmt-resource>=21.1.0,<24",
        "azure-mgmt-storage>=21.0.0",
        "azure-mgmt-blueprint>=1.0.0b1",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "azprovider=azprovider.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: System :: Systems Administration",
    ],
)
