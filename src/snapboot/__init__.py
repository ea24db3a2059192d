#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

__version__ = "0.0.1b1"
