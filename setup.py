#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import setuptools


setuptools.setup(
    name="snapboot",
    version="0.0.1b1",
    description="GRUB menu entries for booting into Btrfs snapshots.",
    license="MIT",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Boot",
        "Topic :: System :: Systems Administration"
    ],
    keywords="btrfs grub snapper snapshots timeshift",
    package_dir={"": "src"},
    packages=setuptools.find_packages(where="src"),
    install_requires=[
        "argh",
        "jsonschema",
        "sh"
    ],
    extras_require={
        "test": [
            "pytest"
        ]
    },
    entry_points={
        "console_scripts": [
            "snapboot=snapboot.__main__:main"
        ]
    },
    zip_safe=True,
    python_requires=">=3.8")
