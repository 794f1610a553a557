from setuptools import find_packages, setup

setup(
    name="quasar-cert",
    version="0.1.0",
    description=(
        "Fast optimality certification of robust rotation registration via "
        "Douglas-Rachford splitting on the QUASAR relaxation."
    ),
    packages=find_packages(include=["quasar_cert", "quasar_cert.*"]),
    python_requires=">=3.8",
    install_requires=["numpy", "scipy"],
    extras_require={
        "test": ["pytest"],
        "experiments": ["matplotlib", "tqdm", "perfplot"],
    },
)
