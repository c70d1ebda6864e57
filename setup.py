from setuptools import setup, find_packages

setup(
    name="BayesPower",
    version="0.1.0",
    packages=find_packages(include=["bayespower", "bayespower.*"]),
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
        "joblib",
    ],
    extras_require={
        "progress": ["tqdm"],
        "test": ["pytest", "tqdm"],
    },
    python_requires=">=3.9",
    author="Paweł Lenartowicz",
    description="Simulation-based power and precision analysis for Bayesian regression models",
)
