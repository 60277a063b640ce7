"""Package entry point for ``python -m dovetail``.

WHY: Users run ``python -m dovetail decode level.dat`` for CLI mode, or
``python -m dovetail --gui [files...]`` for the desktop editor.

HOW: Checks sys.argv for the ``--gui`` flag. If present, launches the
Tkinter GUI with any remaining arguments as files to open. Otherwise,
delegates to the CLI's main() function.
"""

import sys

if __name__ == "__main__":
    if "--gui" in sys.argv:
        from dovetail.gui import main as gui_main
        gui_main([arg for arg in sys.argv[1:] if arg != "--gui"])
    else:
        from dovetail.cli import main
        main()
