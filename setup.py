# setup.py
from setuptools import setup, find_namespace_packages

setup(
    name="oracle_v2",
    version="0.1.0",
    packages=find_namespace_packages(include=["oracle_v2", "oracle_v2.*"]),
    python_requires=">=3.9",
    install_requires=[
        "msgpack",              # state encoding
        "plyvel",               # LevelDB store
        "pycryptodome",         # keccak-256
        "cryptography",         # caller identity (ECDSA keys)
        "py_ecc",               # BLS12-381 committee signatures
        "prometheus_client",    # metrics
        "psutil",               # monitoring
    ],
    extras_require={
        "test": ["pytest"],
    },
)
