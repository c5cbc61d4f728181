from setuptools import setup, find_packages

setup(
    name="cmsketch",
    version="0.1.0",
    description="Thread-safe Count-Min Sketch for approximate per-key frequency counting",
    author="adamfilli",
    packages=find_packages(include=["cmsketch", "cmsketch.*"]),
    install_requires=[
        "matplotlib",
        "pandas",
    ],
    extras_require={
        "test": ["pytest"],
    },
    include_package_data=True,
    python_requires=">=3.12",
)
