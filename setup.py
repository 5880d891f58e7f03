from setuptools import setup, find_packages

setup(
    name="observation_water_depth",
    version="0.1.0",
    description="Water depth at field observations from NOAA gauge readings and topobathymetry",
    author="RPA",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "requests>=2.31.0",
        "pandas>=2.0.0",
        "pyarrow>=14.0.1",  # For parquet support
        "numpy>=1.24.0",    # For numerical operations
        "pyyaml>=6.0.0",    # For YAML configuration files
        "scipy>=1.10.0",    # For KD-tree search and validation statistics
        "tqdm>=4.65.0",     # For fetch progress
    ],
    extras_require={
        'dev': [
            'pytest>=7.0.0',
            'responses>=0.23.0',
            'black>=23.0.0',
            'flake8>=6.0.0',
            'mypy>=1.0.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'waterdepth-run=waterdepth.cli:main',
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering :: Hydrology',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
    ],
)
