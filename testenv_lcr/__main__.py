"""Run the testenv-lcr command line tool."""

from testenv_lcr.tool.testenv_lcr import main

if __name__ == "__main__":
    main()
