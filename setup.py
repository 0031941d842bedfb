import setuptools


with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="tofrange",
    version="1.0.0",
    description="Driver for histogram Time-of-Flight ranging sensors",
    long_description=long_description,
    long_description_content_type="text/markdown",
    install_requires=["numpy>=1.16.3", "pyserial>=3.4", "smbus2>=0.4"],
    extras_require={"test": ["pytest", "pytest-mock"]},
    python_requires=">=3.10",
    packages=setuptools.find_packages(exclude=("tests", "tests.*")),
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "Development Status :: 4 - Beta",
    ],
)
