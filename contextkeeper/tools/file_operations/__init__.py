#!/usr/bin/env python3
"""
File Operations Tools Package
"""

from .edit_file_tool import EditFileTool
from .list_directory_tool import ListDirectoryTool
from .read_file_tool import ReadFileTool
from .search_files_tool import SearchFilesTool

__all__ = ["ReadFileTool", "EditFileTool", "SearchFilesTool", "ListDirectoryTool"]
