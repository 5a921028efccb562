"""Node provider backed by the nerdctl (or finch) command line."""