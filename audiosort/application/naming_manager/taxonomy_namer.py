"""
Taxonomy Namer

根据分类（UCS category）和自定义名称生成目标文件夹与基础文件名。
All functions are pure: identical inputs always give identical names.
"""

from __future__ import annotations

import re
from typing import Optional

from audiosort.domain.models import CategoryRecord


class TaxonomyNamer:
    """
    分类命名器

    folder:  CATEGORY_UPPER_SNAKE/SUBCATEGORY_UPPER_SNAKE
    base:    SHORT[_Suffix][_CustomName]
    """

    SEPARATOR = "_"
    EXTENSION = ".wav"

    WHITESPACE = re.compile(r"\s+")
    ILLEGAL_CHARS = re.compile(r"[^A-Za-z0-9_-]")
    REPEATED_SEPARATOR = re.compile(r"_+")

    def folder_path(self, category: CategoryRecord) -> str:
        """分类文件夹路径（始终使用 / 分隔）"""
        return f"{self.upper_snake(category.category)}/{self.upper_snake(category.sub_category)}"

    def base_name(self, category: CategoryRecord, custom_name: Optional[str] = None) -> str:
        """基础文件名，不含序号和扩展名"""
        short_code = category.short_code.strip().upper()
        base = short_code

        suffix = self.cat_id_suffix(category.id, category.short_code)
        if suffix:
            base = f"{base}{self.SEPARATOR}{suffix}"

        clean = self.sanitize_custom_name(custom_name) if custom_name else ""
        if clean:
            base = f"{base}{self.SEPARATOR}{clean}"

        return base

    @staticmethod
    def cat_id_suffix(cat_id: str, short_code: str) -> str:
        """
        CatID with the short-code prefix removed.

        ``cat_id_suffix("VEHUtil", "VEH") == "Util"``; empty when the id
        does not start with the short code.
        """
        if not short_code or not cat_id.lower().startswith(short_code.lower()):
            return ""
        rest = cat_id[len(short_code):]
        return rest[:1].upper() + rest[1:].lower()

    def upper_snake(self, value: str) -> str:
        return self.WHITESPACE.sub(self.SEPARATOR, value.strip()).upper()

    def sanitize_custom_name(self, value: str) -> str:
        """
        Reduce a free-form name to ``Title_Case_Words``.

        "my car!! engine" -> "My_Car_Engine". Returns "" when nothing usable
        remains.
        """
        text = self.WHITESPACE.sub(self.SEPARATOR, value.strip())
        text = self.ILLEGAL_CHARS.sub(self.SEPARATOR, text)
        text = self.REPEATED_SEPARATOR.sub(self.SEPARATOR, text)
        text = text.strip(self.SEPARATOR)
        if not text:
            return ""
        return self.SEPARATOR.join(word[:1].upper() + word[1:].lower() for word in text.split(self.SEPARATOR))

    def file_name(self, base_name: str, sequence: Optional[int] = None) -> str:
        """``base.wav`` or ``base_NN.wav``"""
        if sequence is None:
            return f"{base_name}{self.EXTENSION}"
        return f"{base_name}{self.SEPARATOR}{format_sequence(sequence)}{self.EXTENSION}"


def format_sequence(number: int) -> str:
    """Zero-padded to at least two digits: 1 -> "01", 123 -> "123"."""
    return f"{number:02d}"


_default_namer = TaxonomyNamer()


def folder_path(category: CategoryRecord) -> str:
    return _default_namer.folder_path(category)


def base_name(category: CategoryRecord, custom_name: Optional[str] = None) -> str:
    return _default_namer.base_name(category, custom_name)


def sanitize_custom_name(value: str) -> str:
    return _default_namer.sanitize_custom_name(value)
