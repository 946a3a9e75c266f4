import setuptools

setuptools.setup(
    name="accelerator_trajectories",
    description="Charged particle trajectories through a chain of accelerator elements",
    packages=setuptools.find_packages(include=["accelerator_trajectories"]),
    install_requires=["numpy", "scipy", "joblib", "numba", "matplotlib"],
    extras_require={"test": ["pytest"]},
    python_requires=">=3.8",
    version="0.1",
)
