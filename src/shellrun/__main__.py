"""shellrun 入口点。

支持: python -m shellrun
"""

from .app import main

if __name__ == "__main__":
    main()
