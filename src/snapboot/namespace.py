#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import typing


class Namespace(dict):
    """
    Read-only dictionary subclass which exposes its key: value pairs as
    attributes.  Missing keys read as None.
    """

    def __init__(self, **kwargs: typing.Any) -> None:
        super().__init__(kwargs)

    def __getattr__(self, name: str) -> typing.Any:
        return self.get(name)

    def __setattr__(self, name: str, value: typing.Any) -> None:
        raise AttributeError(f"Namespace is read-only: {name}")

    def __setitem__(self, name: str, value: typing.Any) -> None:
        raise TypeError(f"Namespace is read-only: {name}")

    def __delitem__(self, name: str) -> None:
        raise TypeError(f"Namespace is read-only: {name}")

    def merge(self, other: typing.Mapping[str, typing.Any]) -> "Namespace":
        """
        Returns a new namespace containing the key: value pairs of this
        namespace recursively updated with those of other.

        Keyword arguments:
        other -- a Mapping type containing the overriding values
        """
        result = dict(self)

        for name, value in other.items():
            if isinstance(value, typing.Mapping) and \
                    isinstance(result.get(name), Namespace):
                result[name] = result[name].merge(value)
            elif isinstance(value, typing.Mapping):
                result[name] = Namespace(**value)
            else:
                result[name] = value

        return Namespace(**result)
