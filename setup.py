from setuptools import setup, find_packages

setup(
    name="pixcache",
    version="0.4.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=["requests>=2.28"],
    extras_require={
        "async": ["aiohttp>=3.8"],
        "images": ["Pillow>=9.0"],
        "test": ["pytest>=7.0", "pytest-asyncio>=0.21", "aiohttp>=3.8", "Pillow>=9.0"],
    },
    description="Client-side image fetching cache with windowed concurrent batch downloads",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    license="MIT",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
    ],
)
