"""Setup script for Idea Capture"""

from setuptools import setup, find_packages

setup(
    name="idea-capture",
    version="0.1.0",
    description="Hold-to-talk idea capture with note-app export",
    author="Min",
    python_requires=">=3.10",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "PyAudio>=0.2.14",
        "numpy>=1.24.0",
        "faster-whisper>=0.10.0",
        "openai>=1.12.0",
        "pynput>=1.7.6",
        "pyyaml>=6.0.1",
        "python-dotenv>=1.0.0",
        "rich>=13.7.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "idea-capture=idea_capture.main:main",
        ],
    },
)
