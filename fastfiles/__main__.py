# fastfiles/__main__.py
from fastfiles.main import entrypoint

entrypoint()
