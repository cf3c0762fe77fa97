"""python -m buildify -i <build_id> [-n] [-v] [-r <root>] <manifest...>"""
from . import main

main()
