import setuptools

__version__ = '1.0.0'

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="echo-das",                        # This is the name of the package
    version=__version__,                        # The initial release version
    author="talg",                          # Full name of the author
    description="Delay-and-sum ultrasound beamforming and scan conversion on numpy and cupy",
    long_description=long_description,      # Long description read from the the readme file
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["tests", "tests.*", "example"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: GNU General Public License v2 (GPLv2)",
        "Operating System :: OS Independent",
    ],                                      # Information to filter the project on PyPi website
    python_requires='>=3.8',                # Minimum version requirement of the package
    install_requires=['numpy', 'scipy'],    # Install other dependencies if any
    extras_require={
        'cuda': ['cupy'],
        'examples': ['matplotlib'],
        'test': ['pytest'],
    },
)
