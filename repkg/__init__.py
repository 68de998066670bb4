"""repkg - npm 包按需缓存代理

按 scope/name/version 从上游 registry 拉取 tarball，解压到
packages/{scope}/{name}@{version}/ 并以静态路径对外提供。
"""

__version__ = "0.1.0"
