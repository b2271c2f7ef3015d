"""
缓存数据流分层
  Keys        : 缓存键编码（symbol 大写 / attribute 小写 / ISO 日期）
  Stores      : 两级存储适配（快速层 + 持久层）
  Engine      : 读取 / 写入 / 提升 / 过期
  Resolution  : 行情值解析策略（哨兵值 → 缓存替代）
  Commands    : 文本命令协议
"""
