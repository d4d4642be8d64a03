# ruff: noqa
from enum import IntEnum as OriginIntEnum
from enum import StrEnum as OriginStrEnum
from enum import EnumMeta


class LabelledEnumMeta(EnumMeta):
    """成员携带中文标签的枚举元类

    成员定义为 ``name = (value, label)``，按值构造时自动补全标签
    """

    def __call__(cls, value, label: str = ""):  # type: ignore
        member = super().__call__(value)  # type: ignore
        member._label = label or cls._labels[member.value]  # type: ignore
        return member

    def __new__(metacls, cls, bases, classdict):  # type: ignore
        enum_class = super().__new__(metacls, cls, bases, classdict)
        enum_class._labels = {member.value: member.label for member in enum_class}  # type: ignore
        enum_class._help_text = ", ".join(f"{member.value}: {member.label}" for member in enum_class)  # type: ignore
        return enum_class


class StrEnum(OriginStrEnum, metaclass=LabelledEnumMeta):
    _labels: dict[str, str]
    _help_text: str

    def __new__(cls, value, label: str = ""):  # type: ignore
        obj = str.__new__(cls, value)
        obj._value_ = value
        obj._label = label  # type: ignore
        return obj

    @property
    def label(self) -> str:
        return self._label  # type: ignore


class IntEnum(OriginIntEnum, metaclass=LabelledEnumMeta):
    _labels: dict[int, str]
    _help_text: str

    def __new__(cls, value, label: str = ""):  # type: ignore
        obj = int.__new__(cls, value)
        obj._value_ = value
        obj._label = label  # type: ignore
        return obj

    @property
    def label(self) -> str:
        return self._label  # type: ignore
