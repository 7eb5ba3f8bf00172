"""Entry point for running kitchen_oci as a module"""

from kitchen_oci.cli import main

if __name__ == "__main__":
    main()
