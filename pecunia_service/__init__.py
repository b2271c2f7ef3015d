"""
Pecunia 行情缓存服务
为表格行情函数提供持久化兜底：上游返回 "Loading..." / "#N/A" / "#ERROR!"
等临时状态时，使用该 symbol / attribute / date 最近一次的有效值替代。

架构分层：
  键编码层   (Keys)        → finance_<SYMBOL>_<attribute>_<date>
  存储适配层 (Stores)      → 快速层（Redis / 内存 TTL）+ 持久层（MongoDB / 文件 / 内存）
  缓存引擎层 (Engine)      → 读取、写入、提升、过期
  解析策略层 (Resolution)  → 行情值可信度判断与缓存替代
  命令层     (Commands)    → SET / GET / REMOVE / LIST / HISTORY / ... 运维命令
"""

__version__ = "1.0.0"
