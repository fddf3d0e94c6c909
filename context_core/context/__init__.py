"""上下文构建层。

- resources: 把文件、选区、代码结构转换为 ContextResource。
- extraction: 代码结构提取（类 / 方法 / 字段）。
- compactor: 把资源集合压缩为可放进 prompt 的文本。
"""
