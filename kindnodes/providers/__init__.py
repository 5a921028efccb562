"""Common interface shared by node providers."""