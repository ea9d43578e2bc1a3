# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

from setuptools import find_packages, setup


setup(
    name="tensorplan",
    version="0.1.0",
    author="Wahyu Ardiansyah",
    description="Tensor contraction planning and dispatch",
    license="Apache-2.0",
    python_requires=">=3.9",
    packages=find_packages(include=["tensorplan", "tensorplan.*"]),
    install_requires=["numpy>=1.21"],
    extras_require={
        "test": ["pytest>=7.0", "hypothesis>=6.0"],
    },
)
