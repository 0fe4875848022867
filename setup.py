from setuptools import setup, find_packages
import os


def read_file(filename):
    """读取文件内容"""
    with open(os.path.join(os.path.dirname(__file__), filename), 'r', encoding='utf-8') as f:
        return f.read()


def read_requirements(filename):
    return [line.strip() for line in read_file(filename).splitlines()
            if line.strip() and not line.startswith("#")]


setup(
    name="nfdrain",
    version="1.0.0",
    author="Network Infrastructure Team",
    author_email="netinfra@example.com",
    description="代理重载期间通过 NFQUEUE 截留新TCP连接，避免连接被拒绝",
    long_description=read_file('README.md'),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*", "docs", "scripts"]),
    entry_points={
        "console_scripts": [
            "nfdrain = nfdrain.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Topic :: System :: Networking",
    ],
    python_requires=">=3.8",
    install_requires=read_requirements('requirements.txt'),
    extras_require={
        "test": ["pytest"],
    },
)
