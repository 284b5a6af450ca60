#!/usr/bin/env python3
"""AI文档审阅系统启动脚本"""

import sys
from pathlib import Path

# 添加项目根目录到Python路径
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

if __name__ == "__main__":
    from career_review.main import main
    main()
