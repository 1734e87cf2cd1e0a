from setuptools import setup, find_packages


setup(
    name="sfxgen",
    version="0.1",
    packages=find_packages(include=["sfxgen", "sfxgen.*"]),
    description="Encrypted self-extracting archives: pack, encrypt, and ship files as one runnable artifact.",
    python_requires=">=3.8",
    install_requires=[
        "pycryptodomex>=3.23.0",
        "argon2-cffi>=23.1.0",
        "psutil>=5.9.0",
    ],
    entry_points={
        "console_scripts": [
            "sfxgen=sfxgen.cli:main",
        ]
    },
)
