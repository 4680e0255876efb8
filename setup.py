"""
Setup script for scqc

Pure-Python package in a src/ layout. Runtime dependencies are numpy and
scipy; HDF5 and AnnData support are optional extras.
"""

from pathlib import Path
from setuptools import setup, find_packages


# Read version from src/scqc/__init__.py
def get_version():
    version_file = Path("src/scqc/__init__.py")
    if version_file.exists():
        for line in version_file.read_text().splitlines():
            if line.startswith("__version__"):
                return line.split("=")[1].strip().strip('"').strip("'")
    return "0.1.0"


# Read long description from README
def get_long_description():
    readme = Path("README.md")
    if readme.exists():
        return readme.read_text(encoding="utf-8")
    return ""


setup(
    name="scqc",
    version=get_version(),
    description="Single-cell quality control and normalization kernels",
    long_description=get_long_description(),
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src", include=["scqc", "scqc.*"]),
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.20",
        "scipy>=1.7",
    ],
    extras_require={
        "hdf5": ["h5py>=3.0"],
        "anndata": ["anndata>=0.8"],
        "test": [
            "pytest>=7.0",
            "h5py>=3.0",
            "anndata>=0.8",
            "pandas",
        ],
    },
    zip_safe=True,
)
