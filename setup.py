from setuptools import setup, find_packages

setup(
    name="denmat",
    version="0.1.0",
    packages=find_packages(include=["denmat", "denmat.*"]),
    package_data={"denmat": ["*.yaml"]},
    install_requires=[
        "PyQt5>=5.15.0",
        "opencv-python>=4.5.0",
        "numpy>=1.20.0",
        "pyyaml>=6.0",
        "tqdm>=4.60.0",
    ],
    extras_require={
        "dev": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "denmat=denmat.run:main",
        ],
    },
    description="Video annotation tool for DENM traffic incident records",
    keywords="video, annotation, DENM, traffic, incident",
    python_requires=">=3.8",
)
