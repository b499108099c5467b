"""PrintStation - Local print agent for HTML print jobs.

PrintStation is a lightweight agent that runs on the machine attached to the
printers. It polls a remote API for pending print jobs, renders each job's
HTML to PDF, sends it to the printer mapped to the job's document type and
reports the outcome back to the server.

Usage:
    printstation configure --url https://your-server.com/api.php --client CLIENT --key KEY
    printstation map factura "HP LaserJet"
    printstation start
    printstation status
    printstation test
"""

__version__ = "0.1.0"
